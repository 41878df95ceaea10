"""Allow `python -m syswhy`"""

from .cli import main

if __name__ == '__main__':
    main()
