"""
Coach knowledge base.

Coaches store free-text guidance (training philosophy, nutrition rules).
Entries are split into overlapping word windows and each chunk is prefixed
with its entry title. Retrieval ranks chunks by how many distinct query
terms they contain, so it works without an embedding service.
"""
import logging
import re
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from models import CoachKnowledgeChunk, CoachKnowledgeEntry

logger = logging.getLogger(__name__)

CHUNK_WORDS = 500
CHUNK_OVERLAP = 50
MIN_TERM_LENGTH = 3

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def chunk_text(text: str, title: str, chunk_words: int = CHUNK_WORDS, overlap: int = CHUNK_OVERLAP) -> List[str]:
    """Split text into windows of chunk_words words overlapping by overlap words."""
    words = text.split()
    if not words:
        return []

    step = max(chunk_words - overlap, 1)
    chunks = []
    for start in range(0, len(words), step):
        window = words[start:start + chunk_words]
        chunks.append(f"[{title}] " + " ".join(window))
        if start + chunk_words >= len(words):
            break
    return chunks


def _terms(text: str) -> set:
    return {t for t in _TOKEN_RE.findall(text.lower()) if len(t) >= MIN_TERM_LENGTH}


def add_text_entry(db: Session, title: str, content: str, created_by: Optional[str] = None) -> CoachKnowledgeEntry:
    """Store an entry and its chunks. Caller commits."""
    entry = CoachKnowledgeEntry(title=title, type="text", content=content, created_by=created_by)
    db.add(entry)
    db.flush()
    for position, chunk in enumerate(chunk_text(content, title)):
        db.add(CoachKnowledgeChunk(entry_id=entry.id, position=position, text=chunk))
    db.flush()
    logger.info(f"Indexed knowledge entry {entry.id} ({title!r})")
    return entry


def delete_entry(db: Session, entry_id: str) -> bool:
    entry = db.query(CoachKnowledgeEntry).filter(CoachKnowledgeEntry.id == entry_id).first()
    if entry is None:
        return False
    db.query(CoachKnowledgeChunk).filter(CoachKnowledgeChunk.entry_id == entry_id).delete(synchronize_session=False)
    db.delete(entry)
    db.flush()
    return True


def list_entries(db: Session) -> List[Dict]:
    entries = db.query(CoachKnowledgeEntry).order_by(CoachKnowledgeEntry.created_at.desc()).all()
    results = []
    for entry in entries:
        chunk_count = db.query(CoachKnowledgeChunk).filter(CoachKnowledgeChunk.entry_id == entry.id).count()
        results.append({
            "id": entry.id,
            "title": entry.title,
            "type": entry.type,
            "created_at": entry.created_at,
            "chunk_count": chunk_count,
        })
    return results


def search_knowledge(db: Session, query: str, limit: int = 5) -> List[str]:
    """Top chunks by distinct query-term overlap. Empty when nothing matches."""
    query_terms = _terms(query)
    if not query_terms:
        return []

    scored = []
    for chunk in db.query(CoachKnowledgeChunk).all():
        score = len(query_terms & _terms(chunk.text))
        if score:
            scored.append((score, chunk.entry_id, chunk.position, chunk.text))

    scored.sort(key=lambda item: (-item[0], item[1], item[2]))
    return [text for _, _, _, text in scored[:limit]]
