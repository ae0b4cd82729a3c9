from fastapi import Request

from feedline.main.container import Container


def get_container(request: Request) -> Container:
    return request.app.state.container
