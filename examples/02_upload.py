"""
Upload files as bundles, resuming once if a chunk cannot be delivered
"""
import asyncio

from arlinks import ArLinksClient, Wallet, setup_logging


async def main():
    setup_logging()
    wallet = Wallet.load("AR-wallet.json")

    def on_progress(bundle_index, uploaded, total):
        print(f"Bundle {bundle_index}: {uploaded}/{total} chunks")

    async with ArLinksClient(wallet) as client:
        outcome = await client.upload(
            ["photo.jpg", "video.mp4", "notes.txt"],
            progress_callback=on_progress,
            output_dir="."
        )

        if not outcome.is_complete:
            print(f"Upload stopped: {outcome.failure}")
            outcome = await client.resume(outcome)

        for bundle in outcome.result:
            names = [entry.name for entry in bundle.manifest.values()]
            print(f"{bundle.transaction_id}: {names}")


if __name__ == "__main__":
    asyncio.run(main())
