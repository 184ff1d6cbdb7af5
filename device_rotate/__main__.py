import sys

from device_rotate.cli import main

if __name__ == "__main__":
    sys.exit(main())
