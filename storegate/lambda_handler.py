"""AWS Lambda entry point.

Mangum translates API Gateway HTTP API (v2) events into ASGI, letting the
FastAPI app run unchanged on Lambda. Lifespan stays on so the counter
store is wired on cold start.
"""

from mangum import Mangum

from storegate.main import app

handler = Mangum(app, lifespan="auto")
