from typing import Iterator

from pydantic import BaseModel, Field, model_validator

HIGHEST_PORT = 65535


class PortAssignment(BaseModel):
    key: str = Field(..., min_length=1)  # env var name the consumer reads the port from
    port: int = Field(..., ge=1, le=HIGHEST_PORT)

    def to_line(self) -> str:
        return f"export {self.key}={self.port}\n"


class PortRange(BaseModel):
    """Inclusive range of allocatable ports"""

    min_port: int = Field(..., ge=1, le=HIGHEST_PORT)
    max_port: int = Field(..., ge=1, le=HIGHEST_PORT)

    @model_validator(mode='after')
    def check_bounds(self):
        if self.min_port > self.max_port:
            raise ValueError(
                f"Invalid range. min ({self.min_port}) must not exceed max ({self.max_port})"
            )
        return self

    def contains(self, port: int) -> bool:
        return self.min_port <= port <= self.max_port

    def ports(self) -> Iterator[int]:
        return iter(range(self.min_port, self.max_port + 1))

    def __len__(self) -> int:
        return self.max_port - self.min_port + 1

    def __str__(self) -> str:
        return f"{self.min_port}-{self.max_port}"
