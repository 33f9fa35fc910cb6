"""
Entry Point Script (Bootstrap)
==============================
Development runner that starts the application without installing it.

Why is this file needed?
------------------------
1. It is located outside the 'src' package to act as a convenient runner.
2. It puts 'src' on 'sys.path' so imports like 'from surfacefem.fea...'
   resolve from a plain checkout.

Usage:
    $ python run.py --view
    $ python run.py --mesh assets/octahedron.obj --equation heat --steps 100
"""
import os
import sys

current_dir: str = os.path.dirname(os.path.abspath(__file__))
src_path: str = os.path.join(current_dir, 'src')
sys.path.insert(0, src_path)

from surfacefem.main import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
