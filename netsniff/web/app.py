from fastapi import FastAPI

from netsniff.web.routes.control import router as control_router

app = FastAPI(title="netsniff")

app.include_router(control_router)
