"""python -m blinky_aggregator"""

from blinky_aggregator.main import cli


if __name__ == "__main__":
    cli()
