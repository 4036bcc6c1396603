import sys

from jax_urdf.cli import main

sys.exit(main())
