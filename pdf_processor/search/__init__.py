from pdf_processor.search.base import SearchIndexBase
from pdf_processor.search.elastic import ElasticsearchIndex

__all__ = ["SearchIndexBase", "ElasticsearchIndex"]
