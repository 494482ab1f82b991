"""決定的なロールアウトのバケット割り当て

バケットハッシュのバージョン1: ``"<flag>:<identity>"`` を UTF-8 で SHA-256 し、
先頭8バイトを符号なしビッグエンディアン 64bit 整数として読む。バケットは
その値を 100 で割った余り。フラグキーをソルトにするので、フラグごとの
10% スライスは互いに独立する。

いずれかを変更するとユーザーのバケットが入れ替わるため、新しいアルゴリズムには
新しい ``HASH_VERSION`` が必要。
"""

from __future__ import annotations

import hashlib

HASH_VERSION = 1
BUCKET_COUNT = 100


def stable_hash(value: str) -> int:
    """プロセスやプラットフォームに依存しない ``value`` の 64bit ハッシュ。"""
    digest = hashlib.sha256(value.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big")


def bucket_for(flag_key: str, identity: str) -> int:
    """``flag_key`` における ``identity`` のバケット（``[0, 100)``）。"""
    return stable_hash(f"{flag_key}:{identity}") % BUCKET_COUNT
