class Streams:
    """Centralised metric stream names"""

    BLOCK_INFO = "block_info"
    MARKET_DATA = "market_data"
    RECENT_TRANSACTIONS = "recent_transactions"

    @classmethod
    def all_streams(cls) -> list[str]:
        return [cls.BLOCK_INFO, cls.MARKET_DATA, cls.RECENT_TRANSACTIONS]
