"""
Locust load testing script for the marketplace API.
Simulates browsing, sign-up, and the buyer cart/checkout flow.

Buyer tasks sign in with the demo account created by scripts/init_db.py;
override it with LOAD_BUYER_EMAIL / LOAD_BUYER_PASSWORD.
"""
import os
import random
from locust import HttpUser, task, between, events
from faker import Faker

fake = Faker()

CATEGORIES = ["MENS", "WOMENS", "KIDS", "OTHER"]
SORT_FIELDS = ["created_at", "price", "rating", "discount"]


class BrowsingUser(HttpUser):
    """
    Anonymous or freshly registered visitor browsing the catalog.
    """

    wait_time = between(1, 5)  # Wait 1-5 seconds between tasks
    weight = 3

    def on_start(self):
        """Called when a simulated user starts."""
        self.auth_token = None
        self.products = []

        # 30% of visitors sign up, the rest browse anonymously
        if random.random() < 0.3:
            self.register_and_signin()

    def register_and_signin(self):
        """Register a new account and sign in."""
        email = f"{fake.user_name()}{random.randint(1000, 9999)}@{fake.free_email_domain()}"
        password = "Test123456!"

        with self.client.post(
            "/api/v1/users/register",
            json={"name": fake.name(), "email": email, "password": password},
            catch_response=True,
            name="/api/v1/users/register"
        ) as response:
            if response.status_code in [201, 400]:
                response.success()

        with self.client.post(
            "/api/v1/users/signin",
            json={"email": email, "password": password},
            catch_response=True,
            name="/api/v1/users/signin"
        ) as response:
            if response.status_code == 200:
                self.auth_token = response.json()["access_token"]
                response.success()
            elif response.status_code == 429:
                response.success()

    @property
    def auth_headers(self):
        """Return authorization headers."""
        if self.auth_token:
            return {"Authorization": f"Bearer {self.auth_token}"}
        return {}

    @task(10)
    def browse_products(self):
        """Browse products - most common action."""
        params = {
            "page": random.randint(1, 5),
            "page_size": random.choice([10, 20, 50]),
            "sort_by": random.choice(SORT_FIELDS),
            "order": random.choice(["asc", "desc"]),
        }
        if random.random() < 0.5:
            params["category"] = random.choice(CATEGORIES)

        with self.client.get(
            "/api/v1/products/",
            params=params,
            catch_response=True,
            name="/api/v1/products/ [browse]"
        ) as response:
            if response.status_code == 200:
                data = response.json()
                if data.get("items"):
                    self.products = data["items"]
                response.success()

    @task(5)
    def search_products(self):
        """Search for products by name and price."""
        search_terms = [
            "shirt", "kurta", "jeans", "saree", "jacket",
            "dress", "shorts", "hoodie", "trousers", "tee"
        ]
        low = random.randint(0, 500)

        params = {
            "search": random.choice(search_terms),
            "min_price": low,
            "max_price": low + random.randint(100, 5000),
            "discounted": random.choice(["true", "false"]),
        }

        with self.client.get(
            "/api/v1/products/",
            params=params,
            catch_response=True,
            name="/api/v1/products/ [search]"
        ) as response:
            if response.status_code == 200:
                response.success()

    @task(8)
    def view_product_detail(self):
        """View a product and its reviews."""
        if not self.products:
            return

        product_id = random.choice(self.products)["id"]

        with self.client.get(
            f"/api/v1/products/{product_id}",
            catch_response=True,
            name="/api/v1/products/{id}"
        ) as response:
            if response.status_code in [200, 404]:
                response.success()

        self.client.get(
            f"/api/v1/reviews/product/{product_id}",
            name="/api/v1/reviews/product/{id}"
        )

    @task(1)
    def view_profile(self):
        """Signed-in visitors look at their account."""
        if not self.auth_token:
            return

        self.client.get("/api/v1/users/me", headers=self.auth_headers, name="/api/v1/users/me")

    @task(1)
    def health_check(self):
        """Health check endpoint."""
        with self.client.get(
            "/health",
            catch_response=True,
            name="/health"
        ) as response:
            if response.status_code == 200:
                response.success()


class BuyerUser(HttpUser):
    """
    Signed-in buyer filling the cart, wishlisting and checking out.
    """

    wait_time = between(1, 3)
    weight = 1

    def on_start(self):
        self.auth_token = None
        self.products = []

        credentials = {
            "email": os.getenv("LOAD_BUYER_EMAIL", "demo@shopfront.local"),
            "password": os.getenv("LOAD_BUYER_PASSWORD", "Demo123!"),
        }
        response = self.client.post("/api/v1/users/signin", json=credentials, name="/api/v1/users/signin")
        if response.status_code == 200:
            self.auth_token = response.json()["access_token"]

    @property
    def auth_headers(self):
        return {"Authorization": f"Bearer {self.auth_token}"}

    def pick_product(self):
        if not self.products:
            response = self.client.get(
                "/api/v1/products/", params={"page_size": 50}, name="/api/v1/products/ [browse]"
            )
            if response.status_code == 200:
                self.products = response.json().get("items", [])
        return random.choice(self.products) if self.products else None

    @task(6)
    def add_to_cart(self):
        """Put a product in the cart."""
        product = self.pick_product()
        if not self.auth_token or not product:
            return

        with self.client.post(
            "/api/v1/cart/items",
            json={"product_id": product["id"], "quantity": random.randint(1, 3)},
            headers=self.auth_headers,
            catch_response=True,
            name="/api/v1/cart/items [add]"
        ) as response:
            if response.status_code in [201, 400, 404]:
                response.success()

    @task(3)
    def view_cart(self):
        if not self.auth_token:
            return

        self.client.get("/api/v1/cart/", headers=self.auth_headers, name="/api/v1/cart/")
        self.client.get("/api/v1/cart/validate", headers=self.auth_headers, name="/api/v1/cart/validate")

    @task(2)
    def wishlist_product(self):
        """Wishlist a product, sometimes moving it straight to the cart."""
        product = self.pick_product()
        if not self.auth_token or not product:
            return

        with self.client.post(
            "/api/v1/wishlist/",
            json={"product_id": product["id"]},
            headers=self.auth_headers,
            catch_response=True,
            name="/api/v1/wishlist/ [add]"
        ) as response:
            if response.status_code in [201, 400]:
                response.success()

        if random.random() < 0.3:
            with self.client.post(
                f"/api/v1/wishlist/{product['id']}/move-to-cart",
                headers=self.auth_headers,
                catch_response=True,
                name="/api/v1/wishlist/{id}/move-to-cart"
            ) as response:
                if response.status_code in [200, 400, 404]:
                    response.success()

    @task(1)
    def checkout(self):
        """Place orders from the cart."""
        if not self.auth_token:
            return

        with self.client.post(
            "/api/v1/cart/checkout",
            json={},
            headers=self.auth_headers,
            catch_response=True,
            name="/api/v1/cart/checkout"
        ) as response:
            # Empty carts and sold out stock are expected under load
            if response.status_code in [201, 400]:
                response.success()

    @task(1)
    def list_orders(self):
        if not self.auth_token:
            return

        self.client.get("/api/v1/orders/", headers=self.auth_headers, name="/api/v1/orders/")


# Event listeners for custom metrics
@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Called when the test starts."""
    print("Load test starting...")


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Called when the test stops."""
    print("Load test completed.")
    print(f"Total users: {environment.runner.user_count}")
