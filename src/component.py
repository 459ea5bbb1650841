# src/component.py
import json
import logging
import shutil
import time
from collections import OrderedDict
from pathlib import Path

import duckdb
from keboola.component.base import ComponentBase
from keboola.component.dao import BaseType, ColumnDefinition, SupportedDataTypes
from keboola.component.exceptions import UserException

from configuration import BulkQuery, Configuration, ListQuery
from shopify_graphql import BulkOperationResult, ShopifyClientError, ShopifyGraphQLClient, reconstruct_file


class Component(ComponentBase):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.logger = logging.getLogger(__name__)
        self.conn = duckdb.connect()
        self.conn.execute("SET temp_directory='./duckdb_temp'")
        self.conn.execute("SET preserve_insertion_order=true")
        self.params = Configuration(**self.configuration.parameters)

    def run(self):
        """
        Main execution code
        """
        params = self.params

        client = ShopifyGraphQLClient(params.client_config())

        if not params.bulk_queries and not params.list_queries:
            self.logger.warning("No bulk or list queries configured, nothing to extract")

        for bulk_query in params.bulk_queries:
            self.logger.info(f"Processing bulk query: {bulk_query.name}")
            self._run_step(bulk_query.name, lambda: self._process_bulk_query(client, bulk_query))

        for list_query in params.list_queries:
            self.logger.info(f"Processing list query: {list_query.name}")
            self._run_step(list_query.name, lambda: self._process_list_query(client, list_query))

        self.logger.info("Data extraction completed successfully")

    def _run_step(self, name: str, step):
        try:
            step()
        except ShopifyClientError:
            raise
        except Exception as e:
            self.logger.error(f"Error processing {name}: {str(e)}")
            raise UserException(f"Failed to process {name}: {str(e)}") from e

    def _process_bulk_query(self, client: ShopifyGraphQLClient, bulk_query: BulkQuery):
        """Export a bulk query, rebuild its nested records and write them as a table"""
        file_def = self.create_out_file_definition(f"{bulk_query.name}_temp.jsonl")
        temp_jsonl = file_def.full_path

        result = client.export_bulk_query(bulk_query.query, temp_jsonl, timeout=self.params.bulk_timeout)

        if result.item_count > 0:
            self._process_bulk_result(result, bulk_query)
        else:
            self.logger.info(f"Bulk query '{bulk_query.name}' returned no results")
            Path(result.file_path).unlink(missing_ok=True)

    def _process_bulk_result(self, bulk_result: BulkOperationResult, bulk_query: BulkQuery):
        """Rebuild the flat bulk records into nested objects and load them with DuckDB"""
        process_start = time.time()
        table_name = bulk_query.name

        self.logger.info(f"Processing {bulk_result.item_count} records from {bulk_result.file_path}")

        records_file = Path(self.create_out_file_definition(f"{table_name}_records.jsonl").full_path)
        try:
            object_count = 0
            with open(records_file, "w", encoding="utf-8") as f:
                for record in reconstruct_file(bulk_result.file_path, bulk_query.result_shape):
                    f.write(json.dumps(record, ensure_ascii=False))
                    f.write("\n")
                    object_count += 1

            row_count = self._load_jsonl_table(table_name, records_file) if object_count else 0

            process_time = time.time() - process_start
            self.logger.info(
                f"Bulk query '{table_name}' processing complete: {row_count} items in {process_time:.2f}s "
                f"(API wait: {bulk_result.api_wait_time:.2f}s, download: {bulk_result.download_time:.2f}s, "
                f"process: {process_time:.2f}s)"
            )
        finally:
            if self.params.debug:
                debug_file = f"bulk_{table_name}_download.jsonl"
                shutil.copy2(bulk_result.file_path, debug_file)
                self.logger.info(f"[DEBUG] Saved bulk results to {debug_file}")
            Path(bulk_result.file_path).unlink(missing_ok=True)
            records_file.unlink(missing_ok=True)

    def _process_list_query(self, client: ShopifyGraphQLClient, list_query: ListQuery):
        """Fetch a paginated query page by page and write it as a table"""
        table_name = list_query.name
        temp_jsonl = Path(self.create_out_file_definition(f"{table_name}_temp.jsonl").full_path)

        item_count = 0
        try:
            with open(temp_jsonl, "w", encoding="utf-8") as f:
                for batch in client.paginate(
                    list_query.query, list_query.data_key, list_query.page_size, variables=list_query.variables
                ):
                    for item in batch:
                        f.write(json.dumps(item, ensure_ascii=False))
                        f.write("\n")
                    item_count += len(batch)

            if item_count:
                self._load_jsonl_table(table_name, temp_jsonl)
                self.logger.info(f"Successfully extracted {item_count} {table_name}")
            else:
                self.logger.info(f"No {table_name} found")
        finally:
            if not self.params.debug:
                temp_jsonl.unlink(missing_ok=True)

    def _load_jsonl_table(self, table_name: str, jsonl_path: Path) -> int:
        """
        Load a JSONL file into DuckDB and export it as a typed CSV table

        Nested objects and lists are serialised to JSON strings.
        """
        raw_table = f"{table_name}_raw"
        self.conn.execute(f"DROP TABLE IF EXISTS {raw_table}")
        self.conn.execute(f"CREATE TABLE {raw_table} AS SELECT * FROM read_json_auto('{jsonl_path}')")

        columns_info = self.conn.execute(f"DESCRIBE {raw_table}").fetchall()

        select_parts = []
        for col_name, col_type, *_ in columns_info:
            if col_type.upper().startswith("STRUCT") or col_type.upper().endswith("[]"):
                select_parts.append(f'to_json("{col_name}") AS "{col_name}"')
            else:
                select_parts.append(f'"{col_name}"')

        select_clause = ", ".join(select_parts)
        self.conn.execute(f"CREATE OR REPLACE TABLE {table_name} AS SELECT {select_clause} FROM {raw_table}")

        table_meta = self.conn.execute(f"DESCRIBE {table_name}").fetchall()
        self._create_typed_manifest(table_name, table_meta)

        result_count = self.conn.execute(f"SELECT COUNT(*) FROM {table_name}").fetchone()
        return result_count[0] if result_count else 0

    def _create_typed_manifest(self, table_name: str, table_meta):
        schema = OrderedDict(
            {
                c[0]: ColumnDefinition(
                    data_types=BaseType(dtype=self.convert_base_types(c[1])),
                    primary_key=False,
                )
                for c in table_meta
            }  # c[0] is the column name, c[1] is the data type
        )
        column_names = [c[0] for c in table_meta]

        out_table = self.create_out_table_definition(
            f"{table_name}.csv",
            schema=schema,
            primary_key=["id"] if "id" in column_names else [],
            incremental=self.params.incremental_output,
            has_header=True,
        )

        try:
            q = f"COPY {table_name} TO '{out_table.full_path}' (HEADER, DELIMITER ',', FORCE_QUOTE *)"
            logging.debug(f"Running query: {q}; ")
            self.conn.execute(q)
            self.write_manifest(out_table)
        except duckdb.ConversionException as e:
            raise UserException(f"Error during query execution: {e}")

    @staticmethod
    def convert_base_types(dtype: str) -> SupportedDataTypes:
        if dtype in [
            "TINYINT",
            "SMALLINT",
            "INTEGER",
            "BIGINT",
            "HUGEINT",
            "UTINYINT",
            "USMALLINT",
            "UINTEGER",
            "UBIGINT",
            "UHUGEINT",
        ]:
            return SupportedDataTypes.INTEGER
        elif dtype in ["REAL", "DECIMAL"] or dtype.startswith("DECIMAL"):
            return SupportedDataTypes.NUMERIC
        elif dtype == "DOUBLE":
            return SupportedDataTypes.FLOAT
        elif dtype == "BOOLEAN":
            return SupportedDataTypes.BOOLEAN
        elif dtype in ["TIMESTAMP", "TIMESTAMP WITH TIME ZONE"]:
            return SupportedDataTypes.TIMESTAMP
        elif dtype == "DATE":
            return SupportedDataTypes.DATE
        else:
            return SupportedDataTypes.STRING


"""
    Main entrypoint
"""
if __name__ == "__main__":
    try:
        comp = Component()
        # this triggers the run method by default and is controlled by the configuration.action parameter
        comp.execute_action()
    except UserException as exc:
        logging.exception(exc)
        exit(1)
    except Exception as exc:
        logging.exception(exc)
        exit(2)
