import asyncio

from dotenv import load_dotenv

from lnrpc import LnrpcConfig, create_lnrpc

load_dotenv()


async def main():
    client = create_lnrpc(LnrpcConfig.from_env())

    info = await client.GetInfo(client.protos.GetInfoRequest())
    print(f"Connected to {info.alias} at block {info.block_height}")

    invoice = await client.AddInvoice(client.protos.Invoice(memo="coffee", value=2500))
    print(f"Pay {invoice.payment_request}")

    async for notification in client.SubscribeInvoices(client.protos.InvoiceSubscription()):
        if "data" not in notification:
            continue
        update = notification["data"]
        print(f"Invoice {update.memo!r} settled={update.settled}")
        if update.settled and update.r_hash == invoice.r_hash:
            break


if __name__ == "__main__":
    asyncio.run(main())
