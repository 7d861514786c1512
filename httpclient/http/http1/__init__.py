from .assemble import assemble_request
from .assemble import assemble_request_head
from .assemble import write_request
from .read import expected_body_size
from .read import read_body
from .read import read_head
from .read import read_response
from .read import read_response_head

__all__ = [
    "read_head",
    "read_response_head",
    "read_response",
    "read_body",
    "expected_body_size",
    "assemble_request",
    "assemble_request_head",
    "write_request",
]
