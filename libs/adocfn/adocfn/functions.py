"""
Asciidoc to HTML conversion function

POST / with Asciidoc source in the body; the response is the rendered HTML
document. Scales to zero when idle.
"""

import logging

from knfn import Request, Response, http_trigger, serverless

from .renderer import AsciidocRenderer

logger = logging.getLogger(__name__)

# Shared read-only by every request
renderer = AsciidocRenderer.from_env()


@serverless(
    memory="256Mi",
    cpu="250m",
    min_instances=0,  # Scale to zero when idle
    max_instances=10,
    target_concurrency=10,
    timeout=30,
    visibility="public",
)
@http_trigger(path="/", methods=["POST"])
def asciidoc_to_html(request: Request) -> Response:
    """
    Convert the request body from Asciidoc to HTML.

    Returns 400 with an empty body when there is nothing to convert.
    Rendering failures propagate and the runtime answers 500.
    """
    if not request.body:
        return Response.empty(400)

    try:
        source = request.text
    except UnicodeDecodeError:
        logger.info("Rejected request body that is not valid UTF-8")
        return Response.empty(400)

    return Response.html(renderer.render(source))
