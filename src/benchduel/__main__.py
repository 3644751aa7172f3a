"""Allow ``python -m benchduel``; workers are re-invoked this way."""

from benchduel.cli import main

if __name__ == "__main__":
    main()
