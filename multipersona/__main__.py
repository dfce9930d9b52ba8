"""Main entry point for the multipersona service."""

from multipersona.main import main

if __name__ == "__main__":
    main()
