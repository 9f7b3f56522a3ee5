from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Blockchain
    RPC_URL: str = "https://testnet-rpc.monad.xyz"
    CHAIN_ID: int = 10143  # Monad testnet
    PRIVATE_KEY: str = ""
    RPC_TIMEOUT: int = 30  # seconds per JSON-RPC request
    RECEIPT_TIMEOUT: int = 180  # seconds to wait for inclusion
    EXPLORER_TX_URL: str = "https://testnet.monadexplorer.com/tx/{tx_hash}"
    NATIVE_SYMBOL: str = "MON"

    # Staking
    STAKE_AMOUNT: str = "0.01"  # in native units, per protocol
    ENABLED_PROTOCOLS: str = "kintsu,magma,apriori"
    STAKING_FREQUENCY: int = 1  # sessions per day
    STAKER_TIMEZONE: str = "UTC"
    MAX_FEE_PER_GAS_GWEI: Optional[float] = None  # unset = no ceiling

    # Protocol contracts
    KINTSU_CONTRACT_ADDRESS: str = "0xe1d2439b75fb9746E7Bc6cB777Ae10AA7f7ef9c5"
    MAGMA_CONTRACT_ADDRESS: str = "0x2c9C959516e9AAEdB2C748224a41249202ca8BE7"
    APRIORI_CONTRACT_ADDRESS: str = "0xb2f82D0f38dc453D596Ad40A37799446Cc89274A"
    MAGMA_REFERRAL_ID: int = 0x8645B0

    # Application
    API_SECRET_KEY: str = "dev-secret-key"
    LOG_LEVEL: str = "INFO"
    PORT: int = 8010

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "frozen": True,
    }


settings = Settings()
