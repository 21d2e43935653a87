import asyncio
import logging
import psycopg2
from typing import List

from src.core.entities.token import TokenInfo
from src.core.interfaces.datasource import ITokenStore

logger = logging.getLogger(__name__)


class PostgresTokenStore(ITokenStore):
    def __init__(self, dsn: str):
        self.dsn = dsn
        self._init_db()

    def _init_db(self):
        conn = psycopg2.connect(self.dsn)
        cur = conn.cursor()

        cur.execute("""
            CREATE TABLE IF NOT EXISTS tokens (
                address VARCHAR PRIMARY KEY,
                name VARCHAR,
                symbol VARCHAR,
                decimals INTEGER,
                image VARCHAR,
                metadata_uri VARCHAR,
                created_at TIMESTAMPTZ DEFAULT NOW()
            );
        """)

        conn.commit()
        cur.close()
        conn.close()

    def _find_many(self, addresses: List[str]) -> List[TokenInfo]:
        conn = psycopg2.connect(self.dsn)
        cur = conn.cursor()

        # Rows without decimals cannot be used to scale amounts
        query = """
            SELECT address, name, symbol, decimals, image, metadata_uri
            FROM tokens
            WHERE address = ANY(%s) AND decimals IS NOT NULL
        """
        cur.execute(query, (list(addresses),))
        rows = cur.fetchall()

        tokens = []
        for row in rows:
            tokens.append(TokenInfo(
                address=row[0],
                name=row[1],
                symbol=row[2],
                decimals=row[3],
                image=row[4],
                metadataUri=row[5]
            ))

        cur.close()
        conn.close()
        return tokens

    def _create(self, token: TokenInfo) -> bool:
        conn = psycopg2.connect(self.dsn)
        cur = conn.cursor()

        insert_query = """
            INSERT INTO tokens (address, name, symbol, decimals, image, metadata_uri)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (address) DO NOTHING
        """
        cur.execute(insert_query, (
            token.address,
            token.name or None,
            token.symbol or None,
            token.decimals,
            token.image or None,
            token.metadataUri or None
        ))

        conn.commit()
        cur.close()
        conn.close()
        return True

    # ITokenStore Implementation (offloaded to a thread to keep the loop free)
    async def find_many(self, addresses: List[str]) -> List[TokenInfo]:
        if not addresses:
            return []
        return await asyncio.to_thread(self._find_many, addresses)

    async def create(self, token: TokenInfo) -> bool:
        return await asyncio.to_thread(self._create, token)
