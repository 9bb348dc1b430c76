"""
Basic webhook receiver for LicenseChain

This is a minimal working example showing how to:
- Verify LicenseChain webhook signatures
- Route events to your own handlers
- Look up the license behind an event

Run with `uvicorn main:app` from this directory, or `python main.py`.
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request

from licensechain import LicenseChainClient, LicenseValidator, WebhookEvent, WebhookHandler

# Load environment variables
load_dotenv()

logging.basicConfig(level=logging.INFO)

SIGNATURE_HEADER = "X-LicenseChain-Signature"

app = FastAPI()

webhooks = WebhookHandler(secret=os.getenv("LICENSECHAIN_WEBHOOK_SECRET", ""))


@webhooks.on("license.created")
async def license_created(event: WebhookEvent):
    key = event.data.get("licenseKey")
    print(f"📬 New license {key} for {event.data.get('userEmail')}")

    if key:
        async with LicenseChainClient(
            api_key=os.getenv("LICENSECHAIN_API_KEY", ""),
            base_url=os.getenv("LICENSECHAIN_BASE_URL")
        ) as client:
            features = await LicenseValidator(client=client).get_features(key)
        print(f"   Features: {', '.join(features) or 'none'}")

    return {"status": "processed"}


@webhooks.on("license.revoked")
def license_revoked(event: WebhookEvent):
    print(f"🚫 License revoked: {event.data.get('licenseId')}")
    return {"status": "processed"}


@app.post("/webhooks")
async def receive_webhook(request: Request):
    body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER, "")

    result = await webhooks.handle_async(body, signature)

    if not result["valid"]:
        print(f"❌ Rejected: {result['error']}")
        raise HTTPException(status_code=401, detail=result["error"])

    print(f"✅ Webhook {result.get('status', 'processed')}")
    return {"status": result.get("status", "processed")}


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    print(f"🔐 Listening for LicenseChain webhooks on :{port}")
    uvicorn.run(app, host=os.getenv("HOST", "127.0.0.1"), port=port)
