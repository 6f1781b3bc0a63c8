"""
Document Processing Package
═══════════════════════════

  extractor.py   PyMuPDF text-layer extraction (runs in a thread executor)
  structured.py  Optional LLM extraction of invoice fields into InvoiceData

Both steps are best-effort from the pipeline's point of view: their
failures are logged and the upload still succeeds.
"""
