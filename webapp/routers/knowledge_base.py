"""
Knowledge Base API Router

Endpoints:
- POST   /v1/knowledgebases                                     - create
- GET    /v1/knowledgebases                                     - list
- DELETE /v1/knowledgebases/{kb_id}                             - delete (drops its vector table)
- POST   /v1/knowledgebases/{kb_id}/files                       - upload (multipart "file")
- GET    /v1/knowledgebases/{kb_id}/files                       - list files
- DELETE /v1/knowledgebases/{kb_id}/files/{file_id}             - delete file
- POST   /v1/knowledgebases/embeddings/{kb_id}/files/{file_id}  - ingest file
- GET    /v1/knowledgebases/{kb_id}/embeddings                  - list embedding records
- DELETE /v1/knowledgebases/{kb_id}/embeddings/{embedding_id}   - delete embedding record
"""

from fastapi import APIRouter, Depends, File, UploadFile
from starlette.concurrency import run_in_threadpool

from core.errors import MalformedRequestError
from core.storage import KnowledgeFile

from webapp.context import AppContext, get_context
from webapp.logging_config import DebugLogger
from webapp.schemas import CreateKnowledgeBaseRequest

router = APIRouter()
log = DebugLogger("kb")


def _file_object(row: KnowledgeFile) -> dict:
    return {
        "id": row.id,
        "bytes": row.bytes,
        "created_at": row.created_at,
        "filename": row.filename,
        "object": "file",
        "purpose": row.purpose,
    }


@router.post("")
async def create_knowledge_base(body: CreateKnowledgeBaseRequest, ctx: AppContext = Depends(get_context)):
    log.request("POST", "/v1/knowledgebases", name=body.name)
    kb, existed = await run_in_threadpool(ctx.knowledge.create_kb, body.name)
    log.store("create_kb", id=kb.id, existed=existed)
    return {"id": kb.id, "name": kb.name, "existed": existed}


@router.get("")
async def list_knowledge_bases(ctx: AppContext = Depends(get_context)):
    kbs = await run_in_threadpool(ctx.knowledge.list_kbs)
    return {
        "object": "list",
        "data": [
            {"id": kb.id, "name": kb.name, "created_at": kb.created_at, "updated_at": kb.updated_at}
            for kb in kbs
        ],
    }


@router.delete("/{kb_id}")
async def delete_knowledge_base(kb_id: int, ctx: AppContext = Depends(get_context)):
    log.request("DELETE", f"/v1/knowledgebases/{kb_id}")
    kb = await run_in_threadpool(ctx.knowledge.delete_kb, kb_id)
    return {"name": kb.name}


@router.post("/{kb_id}/files")
async def upload_file(kb_id: int, file: UploadFile = File(...), ctx: AppContext = Depends(get_context)):
    if not file.filename:
        raise MalformedRequestError("Uploaded file has no filename")
    data = await file.read()
    log.request("POST", f"/v1/knowledgebases/{kb_id}/files", filename=file.filename, bytes=len(data))
    row = await run_in_threadpool(ctx.knowledge.upload_file, kb_id, file.filename, data)
    return _file_object(row)


@router.get("/{kb_id}/files")
async def list_files(kb_id: int, ctx: AppContext = Depends(get_context)):
    rows = await run_in_threadpool(ctx.knowledge.list_files, kb_id)
    return {"object": "list", "data": [_file_object(r) for r in rows]}


@router.delete("/{kb_id}/files/{file_id}")
async def delete_file(kb_id: int, file_id: int, ctx: AppContext = Depends(get_context)):
    log.request("DELETE", f"/v1/knowledgebases/{kb_id}/files/{file_id}")
    row = await run_in_threadpool(ctx.knowledge.delete_file, kb_id, file_id)
    return {"id": row.id, "object": "file", "deleted": True}


@router.post("/embeddings/{kb_id}/files/{file_id}")
async def ingest_file(kb_id: int, file_id: int, ctx: AppContext = Depends(get_context)):
    log.request("POST", f"/v1/knowledgebases/embeddings/{kb_id}/files/{file_id}")
    record = await run_in_threadpool(ctx.knowledge.ingest, kb_id, file_id)
    log.rag("ingest", kb=kb_id, file=record.filename, record=record.id)
    return {
        "id": record.id,
        "object": "embedding",
        "kb_id": record.kb_id,
        "file_id": record.file_id,
        "filename": record.filename,
    }


@router.get("/{kb_id}/embeddings")
async def list_embeddings(kb_id: int, ctx: AppContext = Depends(get_context)):
    records = await run_in_threadpool(ctx.knowledge.list_embeddings, kb_id)
    return {"object": "list", "data": [r.to_dict() for r in records]}


@router.delete("/{kb_id}/embeddings/{embedding_id}")
async def delete_embedding(kb_id: int, embedding_id: str, ctx: AppContext = Depends(get_context)):
    deleted = await run_in_threadpool(ctx.knowledge.delete_embedding, kb_id, embedding_id)
    return {"id": embedding_id, "object": "embedding", "deleted": deleted}
