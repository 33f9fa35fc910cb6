"""Surface PDE playground: P1 finite elements on triangulated surfaces."""
