"""PDF tools plugin."""

manifest = {
    "title": "PDF Tools",
    "summary": "Merge, split, and compress PDF documents.",
    "blueprint": "pdf_tools",
    "category": "Document Utilities",
}


__all__ = ["manifest"]
