"""`python -m hook_miner` and the `hook-miner` console script."""
from hook_miner.cli import cli


def main():
    cli(prog_name="hook-miner")


if __name__ == "__main__":
    main()
