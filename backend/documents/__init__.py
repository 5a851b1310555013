# Documents module
from .parser import DocumentParser, ParsedDocument, document_parser
