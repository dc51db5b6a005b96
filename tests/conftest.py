"""Pytest configuration and fixtures."""

import os

# Set test database URL BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"

import asyncio
import io
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from docx import Document as DocxDocument
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.db.session import Base
import app.db.models  # noqa: F401  registers tables on Base.metadata


def make_pdf(lines: list[str]) -> bytes:
    """Build a minimal one-page PDF whose text layer holds ``lines``."""
    escaped = [line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)") for line in lines]
    ops = ["BT", "/F1 11 Tf", "14 TL", "50 780 Td"]
    for line in escaped:
        ops.append(f"({line}) Tj T*")
    ops.append("ET")
    stream = "\n".join(ops).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 842] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = io.BytesIO()
    out.write(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(out.tell())
        out.write(b"%d 0 obj\n" % number + body + b"\nendobj\n")
    xref_at = out.tell()
    out.write(b"xref\n0 %d\n" % (len(objects) + 1))
    out.write(b"0000000000 65535 f \n")
    for offset in offsets:
        out.write(b"%010d 00000 n \n" % offset)
    out.write(b"trailer\n<< /Size %d /Root 1 0 R >>\n" % (len(objects) + 1))
    out.write(b"startxref\n%d\n%%%%EOF\n" % xref_at)
    return out.getvalue()


def make_docx(paragraphs: list[str], table: list[list[str]] | None = None) -> bytes:
    """Build a DOCX with the given paragraphs and optional table rows."""
    document = DocxDocument()
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    if table:
        grid = document.add_table(rows=len(table), cols=len(table[0]))
        for r, row in enumerate(table):
            for c, value in enumerate(row):
                grid.cell(r, c).text = value
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


CONTRACT_LINES = [
    "SERVICE AGREEMENT",
    "This Service Agreement is entered into on 2024-01-01 between Acme Corp and Widget Inc.",
    "Either party may terminate this Agreement with thirty days written notice.",
]

JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 32
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def make_ai_result(**overrides) -> dict:
    """A well-formed raw AI analysis result."""
    result = {
        "contractType": "Service Agreement",
        "effectiveDate": "2024-01-01",
        "renewalDate": "2025-01-01",
        "noticePeriodDays": 30,
        "terminationClauseReference": "Section 12.1",
        "summary": "Services agreement between Acme Corp and Widget Inc.",
        "parties": ["Acme Corp", "Widget Inc"],
        "alerts": ["Auto-renews unless notice is given"],
        "riskScore": 3,
        "abusiveClauses": [],
    }
    result.update(overrides)
    return result


class FakeProvider:
    """Scripted AIProvider.

    ``responses`` maps a model to a list of outcomes consumed in order (the
    last one repeats). An outcome is a dict (returned as JSON), a string, an
    exception instance (raised), or a ``(delay_s, outcome)`` tuple.
    """

    name = "fake"

    def __init__(self, responses=None, default=None, ocr_text="Transcribed contract text " * 5):
        self.responses = {model: list(items) for model, items in (responses or {}).items()}
        self.default = default if default is not None else make_ai_result()
        self.ocr_text = ocr_text
        self.calls: list[str] = []
        self.prompts: list[str] = []
        self.ocr_calls: list[tuple[str, str]] = []

    def _next(self, model):
        queue = self.responses.get(model)
        if not queue:
            return self.default
        return queue[0] if len(queue) == 1 else queue.pop(0)

    async def _resolve(self, outcome):
        if isinstance(outcome, tuple):
            delay, outcome = outcome
            await asyncio.sleep(delay)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, dict):
            return json.dumps(outcome)
        return outcome

    async def generate(self, prompt, model, *, temperature=0.1, json_response=True):
        self.calls.append(model)
        self.prompts.append(prompt)
        return await self._resolve(self._next(model))

    async def transcribe_image(self, data, content_type, model):
        self.ocr_calls.append((content_type, model))
        return await self._resolve(self.ocr_text)


@pytest.fixture
def fake_provider():
    """Factory for scripted AI providers."""
    return FakeProvider


@pytest.fixture
def pdf_factory():
    return make_pdf


@pytest.fixture
def docx_factory():
    return make_docx


@pytest.fixture
def contract_pdf():
    return make_pdf(CONTRACT_LINES)


@pytest.fixture(scope="function")
def sqlite_sessionmaker(tmp_path):
    """Create a SQLite database with schema for testing."""
    db_path = tmp_path / "test.db"
    engine = create_engine(f"sqlite:///{db_path}", echo=False)
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    yield SessionLocal
    engine.dispose()


@pytest.fixture
def mock_db_session():
    """Create a mock async database session."""
    mock_session = MagicMock()
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)
    mock_session.execute = AsyncMock()
    mock_session.add = MagicMock()
    mock_session.commit = AsyncMock()
    return mock_session


@pytest.fixture
def mock_temporal():
    """Create a mock Temporal client."""
    return AsyncMock()


@pytest.fixture
def mock_storage():
    """Create a mock storage client."""
    storage = MagicMock()
    storage.put_bytes = MagicMock()
    storage.get_bytes = MagicMock(return_value=b"test")
    return storage
