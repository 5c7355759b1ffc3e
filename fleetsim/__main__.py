import argparse

import uvicorn


def main():
    ap = argparse.ArgumentParser(prog="fleetsim")
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=8000)
    args = ap.parse_args()
    # logging is configured by the app's lifespan hook
    uvicorn.run("fleetsim.main:app", host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
