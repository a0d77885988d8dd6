"""
Wallet basics - Generate or load a wallet and check its balance
"""
import asyncio
from pathlib import Path

from arlinks import ArLinksClient, Wallet


async def main():
    wallet_path = Path("AR-wallet.json")

    if wallet_path.exists():
        wallet = Wallet.load(wallet_path)
    else:
        wallet = Wallet.generate()
        wallet.save(wallet_path)
        print(f"New wallet saved to {wallet_path}")

    async with ArLinksClient(wallet) as client:
        print(f"Address: {client.address}")
        print(f"Balance: {await client.get_balance()} AR")

        # Watch the balance for a while
        async with client.watch_balance(lambda ar: print(f"Balance: {ar} AR"), interval=10):
            await asyncio.sleep(30)


if __name__ == "__main__":
    asyncio.run(main())
