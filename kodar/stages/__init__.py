"""Pipeline stages: ingestion, clustering driver, joins, labeling, export.

Each stage reads sequence records written by the previous one and deletes its
own target directory before writing, so any stage can be re-run on its own.
"""
