"""Command line entry point: ``python -m sivic [--port N]``."""

import argparse

from sivic.main import run_server


def main():
    parser = argparse.ArgumentParser(description="Sivic security API server")
    parser.add_argument("--port", type=int, help="Server port")
    args = parser.parse_args()

    run_server(port=args.port)


if __name__ == "__main__":
    main()
