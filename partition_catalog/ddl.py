"""DDL and SQL templates for the partition catalog.

Partition metadata lives in small catalog tables next to the data. Queries use
``{name:Type}`` parameter placeholders which the database resource converts to
positional parameters; table and column identifiers are formatted in with
``str.format`` after being quoted.
"""

# ============================================================================
# Catalog tables
# ============================================================================

CREATE_PARTITION_FUNCTIONS = """
    CREATE TABLE IF NOT EXISTS partition_functions (
        table_name VARCHAR PRIMARY KEY,
        partition_column VARCHAR NOT NULL,
        boundary_type VARCHAR NOT NULL,
        range_type VARCHAR NOT NULL DEFAULT 'RIGHT',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
"""

# Boundaries are stored as text and cast to boundary_type on read
CREATE_PARTITION_BOUNDARIES = """
    CREATE TABLE IF NOT EXISTS partition_boundaries (
        table_name VARCHAR NOT NULL,
        boundary_value VARCHAR NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (table_name, boundary_value)
    )
"""

CREATE_MIGRATION_CURSORS = """
    CREATE TABLE IF NOT EXISTS migration_cursors (
        run_id VARCHAR PRIMARY KEY,
        source_table VARCHAR NOT NULL,
        destination_table VARCHAR NOT NULL,
        cursor_value VARCHAR,
        batches_committed BIGINT NOT NULL DEFAULT 0,
        rows_migrated BIGINT NOT NULL DEFAULT 0,
        status VARCHAR NOT NULL DEFAULT 'PENDING',
        last_error VARCHAR,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
"""

CREATE_PARTITION_LEASES = """
    CREATE TABLE IF NOT EXISTS partition_leases (
        resource_name VARCHAR PRIMARY KEY,
        holder VARCHAR NOT NULL,
        acquired_at TIMESTAMP NOT NULL,
        expires_at TIMESTAMP NOT NULL
    )
"""

CATALOG_DDL = [
    CREATE_PARTITION_FUNCTIONS,
    CREATE_PARTITION_BOUNDARIES,
    CREATE_MIGRATION_CURSORS,
    CREATE_PARTITION_LEASES,
]

# ============================================================================
# Information schema
# ============================================================================

TABLE_EXISTS = """
    SELECT count(*)
    FROM information_schema.tables
    WHERE table_name = {table:String}
"""

TABLE_COLUMNS = """
    SELECT column_name, data_type, is_nullable
    FROM information_schema.columns
    WHERE table_name = {table:String}
    ORDER BY ordinal_position
"""

TABLE_CONSTRAINTS = """
    SELECT constraint_type, constraint_column_names
    FROM duckdb_constraints()
    WHERE table_name = {table:String}
"""

# ============================================================================
# Partition functions and boundaries
# ============================================================================

GET_PARTITION_FUNCTION = """
    SELECT table_name, partition_column, boundary_type, range_type, created_at
    FROM partition_functions
    WHERE table_name = {table:String}
"""

LIST_PARTITION_FUNCTIONS = "SELECT table_name FROM partition_functions ORDER BY table_name"

INSERT_PARTITION_FUNCTION = """
    INSERT INTO partition_functions (table_name, partition_column, boundary_type, range_type)
    VALUES ({table:String}, {column:String}, {boundary_type:String}, {range_type:String})
"""

DELETE_PARTITION_FUNCTION = "DELETE FROM partition_functions WHERE table_name = {table:String}"

DELETE_PARTITION_BOUNDARIES = "DELETE FROM partition_boundaries WHERE table_name = {table:String}"

# Placeholders: {boundary_type}
LIST_BOUNDARIES = """
    SELECT CAST(boundary_value AS {boundary_type}) AS boundary_value, created_at
    FROM partition_boundaries
    WHERE table_name = {{table:String}}
    ORDER BY CAST(boundary_value AS {boundary_type}) ASC
"""

# Placeholders: {boundary_type}
MAX_BOUNDARY = """
    SELECT max(CAST(boundary_value AS {boundary_type}))
    FROM partition_boundaries
    WHERE table_name = {{table:String}}
"""

INSERT_BOUNDARY = """
    INSERT INTO partition_boundaries (table_name, boundary_value)
    VALUES ({table:String}, {boundary_value:String})
"""

# ============================================================================
# Partition data
# ============================================================================

# Placeholders: {table}, {predicate}
COUNT_ROWS_IN_RANGE = "SELECT count(*) FROM {table} WHERE {predicate}"

# Placeholders: {table}
COUNT_ROWS = "SELECT count(*) FROM {table}"

# Placeholders: {archive_table}, {columns}, {table}, {predicate}
COPY_RANGE_TO_ARCHIVE = """
    INSERT INTO {archive_table} ({columns})
    SELECT {columns} FROM {table} WHERE {predicate}
"""

# Placeholders: {table}, {predicate}
DELETE_RANGE = "DELETE FROM {table} WHERE {predicate}"

# ============================================================================
# Subset migration
# ============================================================================

# Candidate keys for the next batch: matching the predicate, after the cursor,
# and not yet materialized in the destination.
# Placeholders: {source}, {destination}, {key}, {where_clause}
BATCH_KEY_WINDOW = """
    SELECT max(k), count(*)
    FROM (
        SELECT s.{key} AS k
        FROM {source} s
        WHERE {where_clause}
          AND NOT EXISTS (SELECT 1 FROM {destination} d WHERE d.{key} = s.{key})
        ORDER BY s.{key}
        LIMIT {{batch_size:UInt64}}
    )
"""

# Placeholders: {source}, {destination}, {key}, {key_type}, {columns}, {source_columns}, {where_clause}
INSERT_BATCH = """
    INSERT INTO {destination} ({columns})
    SELECT {source_columns}
    FROM {source} s
    WHERE {where_clause}
      AND s.{key} <= CAST({{upper_key:String}} AS {key_type})
      AND NOT EXISTS (SELECT 1 FROM {destination} d WHERE d.{key} = s.{key})
"""

# ============================================================================
# Migration cursors
# ============================================================================

GET_MIGRATION_CURSOR = """
    SELECT run_id, source_table, destination_table, cursor_value, batches_committed,
           rows_migrated, status, last_error, created_at, updated_at
    FROM migration_cursors
    WHERE run_id = {run_id:String}
"""

LIST_MIGRATION_CURSORS = """
    SELECT run_id, source_table, destination_table, cursor_value, batches_committed,
           rows_migrated, status, last_error, created_at, updated_at
    FROM migration_cursors
    ORDER BY run_id
"""

INSERT_MIGRATION_CURSOR = """
    INSERT INTO migration_cursors (run_id, source_table, destination_table, status)
    VALUES ({run_id:String}, {source_table:String}, {destination_table:String}, {status:String})
"""

ADVANCE_MIGRATION_CURSOR = """
    UPDATE migration_cursors
    SET cursor_value = {cursor_value:String},
        batches_committed = batches_committed + 1,
        rows_migrated = rows_migrated + {rows:UInt64},
        status = {status:String},
        last_error = NULL,
        updated_at = {now:DateTime}
    WHERE run_id = {run_id:String}
"""

SET_MIGRATION_STATUS = """
    UPDATE migration_cursors
    SET status = {status:String},
        last_error = {last_error:String},
        updated_at = {now:DateTime}
    WHERE run_id = {run_id:String}
"""

DELETE_MIGRATION_CURSOR = "DELETE FROM migration_cursors WHERE run_id = {run_id:String}"

# ============================================================================
# Leases
# ============================================================================

GET_LEASE = """
    SELECT resource_name, holder, acquired_at, expires_at
    FROM partition_leases
    WHERE resource_name = {resource_name:String}
"""

DELETE_EXPIRED_LEASE = """
    DELETE FROM partition_leases
    WHERE resource_name = {resource_name:String} AND expires_at <= {now:DateTime}
"""

INSERT_LEASE = """
    INSERT INTO partition_leases (resource_name, holder, acquired_at, expires_at)
    VALUES ({resource_name:String}, {holder:String}, {now:DateTime}, {expires_at:DateTime})
"""

RELEASE_LEASE = """
    DELETE FROM partition_leases
    WHERE resource_name = {resource_name:String} AND holder = {holder:String}
"""
