from pydantic import BaseModel


class Route(BaseModel):
    name: str
    params: dict = {}
