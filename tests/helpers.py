import settings

BASE = settings.BASE_PATH

PASSWORD = "s3cret-pass"


def signup(client, email="alice@gmail.com", password=PASSWORD, name="Alice", phone="5550100"):
    return client.post(f"{BASE}/signup", json={"email": email, "name": name, "phone": phone, "password": password})
