from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on postgres, plain JSON elsewhere (sqlite in tests); None is stored as SQL NULL
JSONType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")
