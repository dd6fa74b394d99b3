"""External collaborators: clustering engine, topic labeler, fingerprint client, categorizer.

Each module exposes a ``typing.Protocol`` for the narrow interface the stages
call plus one concrete implementation. Stages reach them only through
``kodar.errors.call_engine``.
"""
