"""
lpsync import infrastructure: tabular reading, column mapping, row records.

Usage:
    from lpsync.imports import TabularImportReader, read_mapping_data, collect_records
"""

from lpsync.imports.mapping import (
    FIELDS,
    MappingSelection,
    auto_map_columns,
    default_mapping,
    get_row_data,
    list_required_headers,
    read_mapping_data,
    selection_from_settings,
)
from lpsync.imports.reader import TabularImportReader, read_upload
from lpsync.imports.records import (
    CompetencyRecord,
    FrameworkRecord,
    build_record,
    clean_identifier,
    collect_records,
)
