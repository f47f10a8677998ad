# ========================
# api_server.py
# ========================

"""
FastAPI Server for Contact List Imports

Provides REST API endpoints for managing subscriber lists, importing
subscribers from uploaded CSV files and mailing a list.
"""

import asyncio
import logging
import shutil
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, Optional

from fastapi import FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, Field
import uvicorn

from src.notify import MailDispatcher, create_sender
from src.pipeline import ContactImportPipeline, ImportInputError, StreamReadError
from src.store import create_store, is_list_id
from src.utils.config import Config
from src.utils.logging_setup import setup_logging

# Configuration
config = Config()

# Setup logging
setup_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)

UPLOAD_DIR = Path(config.UPLOAD_DIR)
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)

# Constants
INVALID_LIST_ID_MSG = "The provided list ID is not valid. Please check the ID and try again."
LIST_NOT_FOUND_MSG = "No list found with that ID"
MISSING_FILE_MSG = "Please provide the csv file for the users"
SERVER_ERROR_MSG = "Uhh! Something went wrong on the server"

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the contact store and mail dispatcher unless already provided."""
    if getattr(app.state, 'store', None) is None:
        app.state.store = create_store(config)
    if getattr(app.state, 'mailer', None) is None:
        app.state.mailer = MailDispatcher(create_sender(config), config.MAIL_SUBJECT)
    yield
    await app.state.store.close()

# Initialize FastAPI app
app = FastAPI(
    title="Contact List Import API",
    description="Manage subscriber lists and bulk-import subscribers from CSV files",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

class ListCreate(BaseModel):
    """Body of POST /lists."""
    title: str = ""
    defaults: Dict[str, str] = Field(default_factory=dict)

def success(message: str, data: Optional[dict] = None) -> dict:
    """Standard success envelope."""
    body = {"status": "success", "message": message}
    if data is not None:
        body["data"] = data
    return body

def _upload_path(file: UploadFile) -> Path:
    """Unique location in UPLOAD_DIR for an upload."""
    return UPLOAD_DIR / f"{uuid.uuid4().hex}_{Path(file.filename).name}"

async def _save_upload(file: UploadFile, file_path: Path) -> None:
    """Copy an upload to `file_path`; a partial file is left for the caller to remove."""
    def write_file():
        with open(file_path, "wb") as buffer:
            shutil.copyfileobj(file.file, buffer)

    await asyncio.to_thread(write_file)

def _remove_upload(file_path: Optional[Path]) -> None:
    """Best-effort removal of a processed upload."""
    if file_path is None:
        return
    try:
        file_path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not delete upload {file_path}: {e}")

@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Contact List Import API",
        "version": "1.0.0",
        "endpoints": {
            "create_list": "POST /lists - Create a list",
            "lists": "GET /lists - List all lists",
            "list": "GET /lists/{list_id} - Get a list with its subscribers",
            "import": "POST /lists/{list_id}/users - Import subscribers from a CSV file",
            "send_mail": "POST /lists/{list_id}/send-mail - Mail every subscriber",
            "health": "GET /health - Health check",
            "api_docs": "GET /docs - API documentation"
        }
    }

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "store": config.STORE_BACKEND}

@app.post("/lists", status_code=201)
async def create_list(body: ListCreate, request: Request):
    """
    Create a subscriber list.
    
    Args:
        body: Title and default column values of the list
        
    Returns:
        dict: The created list
    """
    title = body.title.strip()
    if not title:
        raise HTTPException(status_code=400, detail="Missing required field: 'title'")

    contact_list = await request.app.state.store.create_list(title, body.defaults)
    return success("List created successfully", {"list": contact_list.to_dict()})

@app.get("/lists")
async def get_lists(
    request: Request,
    limit: int = Query(20, ge=1, le=1000),
    page: int = Query(1, ge=1)
):
    """List subscriber lists, one page at a time."""
    lists = await request.app.state.store.get_lists(limit=limit, page=page)
    return success("Lists fetched successfully", {
        "length": len(lists),
        "lists": [contact_list.to_dict() for contact_list in lists]
    })

@app.get("/lists/{list_id}")
async def get_list(
    list_id: str,
    request: Request,
    limit: int = Query(100, ge=1, le=1000),
    page: int = Query(1, ge=1)
):
    """
    Get a list together with one page of its subscribers.
    
    Args:
        list_id: List identifier
        limit: Subscribers per page
        page: Page number (1-based)
        
    Returns:
        dict: List details and subscribers
    """
    if not is_list_id(list_id):
        raise HTTPException(status_code=400, detail=INVALID_LIST_ID_MSG)

    store = request.app.state.store
    contact_list = await store.find_list(list_id)
    if contact_list is None:
        raise HTTPException(status_code=400, detail=INVALID_LIST_ID_MSG)

    data = contact_list.to_dict()
    data["users"] = await store.find_subscribers(list_id, limit=limit, page=page)
    data["usersCount"] = await store.count_by_list(list_id)
    return success("List fetched successfully", {"list": data})

@app.post("/lists/{list_id}/users")
async def add_users(list_id: str, request: Request, file: Optional[UploadFile] = File(None)):
    """
    Import subscribers from an uploaded CSV file.
    
    The response is a CSV report: a stats table (added, not added, total in
    list), a blank line, then every rejected row with its ERROR code.
    
    Args:
        list_id: Target list identifier
        file: CSV file with a header row, needs `name` and `email` columns
        
    Returns:
        Response: text/csv report attachment
    """
    file_path = None
    try:
        if file is None or not file.filename:
            raise ImportInputError(MISSING_FILE_MSG)
        if not is_list_id(list_id):
            raise ImportInputError(LIST_NOT_FOUND_MSG)

        store = request.app.state.store
        if await store.find_list(list_id) is None:
            raise ImportInputError(LIST_NOT_FOUND_MSG)

        file_path = _upload_path(file)
        try:
            await _save_upload(file, file_path)
        except OSError as e:
            logger.error(f"Could not save upload {file.filename}: {e}")
            raise HTTPException(status_code=500, detail=SERVER_ERROR_MSG)
        logger.info(f"Importing {file.filename} into list {list_id}")

        pipeline = ContactImportPipeline(store, list_id, config=config)
        report = await pipeline.run_file(str(file_path))

    except ImportInputError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except StreamReadError as e:
        logger.error(f"Import into list {list_id} failed: {e}")
        raise HTTPException(status_code=500, detail=SERVER_ERROR_MSG)
    finally:
        _remove_upload(file_path)

    return Response(
        content=report.content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="data.csv"'}
    )

@app.post("/lists/{list_id}/send-mail")
async def send_mail(list_id: str, request: Request):
    """
    Mail every subscriber of a list.
    
    The request body is the message template; `$field` placeholders are
    filled from each subscriber's columns.
    """
    template = (await request.body()).decode("utf-8", errors="replace")
    if not template.strip():
        raise HTTPException(status_code=400, detail="Please provide the email template")

    if not is_list_id(list_id):
        raise HTTPException(status_code=400, detail=LIST_NOT_FOUND_MSG)
    store = request.app.state.store
    if await store.find_list(list_id) is None:
        raise HTTPException(status_code=400, detail=LIST_NOT_FOUND_MSG)

    outcome = await request.app.state.mailer.send_to_list(store, list_id, template)
    return {"status": "success", "message": "Email sent successfully", **outcome}

def start_server(host: str = "0.0.0.0", port: int = None, reload: bool = False):
    """Start the FastAPI server."""
    port = port or config.API_PORT
    logger.info(f"Starting Contact List Import API server on {host}:{port}")
    uvicorn.run(
        "api_server:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )

if __name__ == "__main__":
    start_server(reload=True)
