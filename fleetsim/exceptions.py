from fastapi import Request
from fastapi.responses import JSONResponse


class ConfigurationError(Exception):
    def __init__(self, detail: str):
        super().__init__(f"Invalid engine configuration: {detail}")
        self.detail = detail


class EngineNotRunning(Exception):
    def __init__(self):
        super().__init__("Engine is not running.")


class WorkerNotFound(Exception):
    def __init__(self, worker_id: int):
        super().__init__(f"Worker {worker_id} not found.")
        self.worker_id = worker_id


class JobNotFound(Exception):
    def __init__(self, job_id: int):
        super().__init__(f"Job {job_id} not found.")
        self.job_id = job_id


def register_exception_handlers(app):
    @app.exception_handler(EngineNotRunning)
    async def engine_not_running_handler(request: Request, exc: EngineNotRunning):
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(WorkerNotFound)
    async def worker_not_found_handler(request: Request, exc: WorkerNotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(JobNotFound)
    async def job_not_found_handler(request: Request, exc: JobNotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})
