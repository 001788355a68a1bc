import re
from dataclasses import dataclass
from io import BytesIO

from pypdf import PdfReader
from docx import Document

SUPPORTED_EXTENSIONS = (".pdf", ".docx")

_EMAIL_RE = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
_PHONE_RE = re.compile(r"(\+?\d[\d\s\-()]{7,}\d)")
_NAME_RE = re.compile(r"([A-Z][a-z]+\s+[A-Z][a-z]+)")


@dataclass
class ResumeIntake:
    raw_text: str
    name: str | None = None
    email: str | None = None
    phone: str | None = None

    def contact_fields(self) -> dict:
        return {"name": self.name or "", "email": self.email or "", "phone": self.phone or ""}


def extract_contact(text: str) -> dict:
    def _first(pattern: re.Pattern) -> str | None:
        match = pattern.search(text or "")
        return match.group(0).strip() if match else None

    return {
        "name": _first(_NAME_RE),
        "email": _first(_EMAIL_RE),
        "phone": _first(_PHONE_RE),
    }


def parse_pdf(file_bytes: bytes) -> str:
    reader = PdfReader(BytesIO(file_bytes))
    text = []
    for page in reader.pages:
        t = page.extract_text()
        if t:
            text.append(t)
    return "\n".join(text)


def parse_docx(file_bytes: bytes) -> str:
    doc = Document(BytesIO(file_bytes))
    return "\n".join([p.text for p in doc.paragraphs])


def is_supported(filename: str) -> bool:
    return str(filename or "").lower().strip().endswith(SUPPORTED_EXTENSIONS)


def parse_resume(filename: str, file_bytes: bytes) -> ResumeIntake:
    name = str(filename or "").lower().strip()
    if name.endswith(".pdf"):
        text = parse_pdf(file_bytes)
    elif name.endswith(".docx"):
        text = parse_docx(file_bytes)
    else:
        raise ValueError("Only PDF or DOCX files are supported")
    return ResumeIntake(raw_text=text, **extract_contact(text))
