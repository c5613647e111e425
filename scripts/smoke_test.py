import requests
import uuid

# Configuration
BASE_URL = "http://localhost:8000"
RUN_ID = uuid.uuid4().hex[:8]


def print_step(msg):
    print(f"\n⚡ {msg}")


def register_and_login(email, password, full_name):
    # 1. Register (409 means the user already exists)
    resp = requests.post(f"{BASE_URL}/auth/register", json={
        "email": email, "password": password, "full_name": full_name
    })
    if resp.status_code not in (201, 409):
        print(f"❌ Failed to register {email}: {resp.text}")
        return None

    # 2. Login (Get Token)
    resp = requests.post(f"{BASE_URL}/auth/login", data={
        "username": email, "password": password
    })
    if resp.status_code != 200:
        print(f"❌ Failed to login {email}: {resp.text}")
        return None

    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def create_store_with_product(headers, name, price, stock):
    slug = f"{name.lower().replace(' ', '-')}-{RUN_ID}"
    store_resp = requests.post(f"{BASE_URL}/stores/", headers=headers, json={"name": name, "slug": slug})
    store_resp.raise_for_status()
    store_id = store_resp.json()["id"]

    prod_resp = requests.post(f"{BASE_URL}/products/", headers=headers, json={
        "store_id": store_id,
        "sku": f"SKU-{RUN_ID}",
        "name": f"{name} Special",
        "price": price,
        "stock_quantity": stock,
    })
    prod_resp.raise_for_status()
    print(f"✅ Store {store_id} with product {prod_resp.json()['id']}")
    return store_id, prod_resp.json()["id"]


def main():
    print("🚀 Starting Smoke Test...")

    # --- 1. SETUP USERS ---
    print_step("Creating Users...")
    owner_a = register_and_login("owner-a@markethub.dev", "OwnerA123!", "Owner A")
    owner_b = register_and_login("owner-b@markethub.dev", "OwnerB123!", "Owner B")
    buyer = register_and_login("buyer@markethub.dev", "Buyer123!", "Buyer")
    if not all([owner_a, owner_b, buyer]):
        return

    # --- 2. TWO STORES, ONE PRODUCT EACH ---
    print_step("Creating Stores & Products...")
    _, product_p = create_store_with_product(owner_a, "Tea House", "25.00", 10)
    _, product_q = create_store_with_product(owner_b, "Cake Shop", "15.00", 8)

    # --- 3. FILL CART ---
    print_step("Filling Cart...")
    for product_id, quantity in ((product_p, 2), (product_q, 1)):
        resp = requests.post(f"{BASE_URL}/cart/items", headers=buyer, json={
            "product_id": product_id, "quantity": quantity
        })
        if resp.status_code != 201:
            print(f"❌ Add to cart failed: {resp.text}")
            return
    print("✅ Cart filled")

    # --- 4. CHECKOUT ---
    print_step("Checking out...")
    # Important: Add Idempotency Key
    headers = {**buyer, "Idempotency-Key": str(uuid.uuid4())}
    payload = {"shipping_address": {"line1": "1 Main St", "city": "Springfield"}}

    resp = requests.post(f"{BASE_URL}/orders/checkout", headers=headers, json=payload)
    if resp.status_code != 201:
        print(f"❌ Checkout Failed: {resp.text}")
        return
    summary = resp.json()
    group = summary["order_group"]
    print(f"✅ Order group {group['group_number']} (Total: {group['total_amount']}, orders: {len(summary['orders'])})")

    replay = requests.post(f"{BASE_URL}/orders/checkout", headers=headers, json=payload)
    if replay.headers.get("Idempotent-Replayed") == "true" and replay.json() == summary:
        print("✅ Retried checkout replayed the first response")
    else:
        print(f"❌ Retry was not replayed: {replay.status_code} {replay.text}")

    cart = requests.get(f"{BASE_URL}/cart/items", headers=buyer).json()
    print(f"{'✅' if not cart else '❌'} Cart has {len(cart)} lines after checkout")

    print("\n🎉 SMOKE TEST COMPLETE!")


if __name__ == "__main__":
    main()
