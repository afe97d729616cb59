import uvicorn

from mirror_proxy.vars import HOST, PORT


def run():
    uvicorn.run("mirror_proxy.server:app", host=HOST, port=PORT)


if __name__ == "__main__":
    run()
