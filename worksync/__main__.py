"""Run the API server: ``python -m worksync [--host HOST] [--port PORT]``."""

import argparse

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(prog="worksync")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    # log_config=None keeps the handlers installed by configure_json_logging
    uvicorn.run("worksync.main:app", host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
