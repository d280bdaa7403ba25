"""Address book tests."""
from conftest import API, make_buyer


def address(city: str, **overrides) -> dict:
    payload = {
        "full_name": "Bob Buyer",
        "phone_number": "9876543210",
        "address1": "42 Residency Road",
        "pincode": "560025",
        "city": city,
        "state": "Karnataka",
    }
    payload.update(overrides)
    return payload


async def test_first_address_becomes_default(client, buyer):
    response = await client.get(f"{API}/addresses/default", headers=buyer.headers)
    assert response.status_code == 404

    response = await client.post(f"{API}/addresses/", json=address("Mysuru"), headers=buyer.headers)
    assert response.status_code == 201
    assert response.json()["is_default"] is True

    response = await client.post(f"{API}/addresses/", json=address("Mangaluru"), headers=buyer.headers)
    assert response.json()["is_default"] is False

    response = await client.get(f"{API}/addresses/default", headers=buyer.headers)
    assert response.json()["city"] == "Mysuru"


async def test_new_default_replaces_old(client, buyer):
    await client.post(f"{API}/addresses/", json=address("Mysuru"), headers=buyer.headers)
    await client.post(
        f"{API}/addresses/", json=address("Hubballi", is_default=True), headers=buyer.headers
    )

    response = await client.get(f"{API}/addresses/", headers=buyer.headers)
    addresses = response.json()
    assert [a["city"] for a in addresses] == ["Hubballi", "Mysuru"]
    assert [a["is_default"] for a in addresses] == [True, False]


async def test_update_address_and_default(client, buyer):
    await client.post(f"{API}/addresses/", json=address("Mysuru"), headers=buyer.headers)
    second = (await client.post(f"{API}/addresses/", json=address("Udupi"), headers=buyer.headers)).json()

    response = await client.put(
        f"{API}/addresses/{second['id']}",
        json={"landmark": "Near the temple", "is_default": True},
        headers=buyer.headers,
    )

    assert response.status_code == 200
    assert response.json()["landmark"] == "Near the temple"
    assert response.json()["is_default"] is True

    response = await client.get(f"{API}/addresses/", headers=buyer.headers)
    assert sum(a["is_default"] for a in response.json()) == 1


async def test_delete_default_promotes_newest(client, buyer):
    first = (await client.post(f"{API}/addresses/", json=address("Mysuru"), headers=buyer.headers)).json()
    await client.post(f"{API}/addresses/", json=address("Udupi"), headers=buyer.headers)
    await client.post(f"{API}/addresses/", json=address("Hassan"), headers=buyer.headers)

    response = await client.delete(f"{API}/addresses/{first['id']}", headers=buyer.headers)
    assert response.status_code == 204

    response = await client.get(f"{API}/addresses/default", headers=buyer.headers)
    assert response.json()["city"] == "Hassan"


async def test_addresses_are_private(client, buyer):
    mine = (await client.post(f"{API}/addresses/", json=address("Mysuru"), headers=buyer.headers)).json()
    other = await make_buyer(client)

    response = await client.put(
        f"{API}/addresses/{mine['id']}", json={"city": "Elsewhere"}, headers=other.headers
    )
    assert response.status_code == 404

    response = await client.delete(f"{API}/addresses/{mine['id']}", headers=other.headers)
    assert response.status_code == 404


async def test_address_validation(client, buyer):
    response = await client.post(
        f"{API}/addresses/", json=address("Mysuru", pincode="1"), headers=buyer.headers
    )
    assert response.status_code == 400
