"""
Example: Writing OData requests with odata_writer
=================================================

This example shows how to turn plain dicts into OData request payloads,
standalone and inside a $batch.
"""

from odata_writer import (
    BatchWriter,
    ConnectionContext,
    ODataAuth,
    ODataConfig,
    ODataSession,
    ReferenceLink,
    RequestWriter,
    WriterSettings,
)
from odata_writer.odata import ODataMetadata


def example_insert():
    """Insert an entry with a navigation link to an existing customer."""

    cfg = ODataConfig(
        base_url="https://services.example.com/odata/Shop/",
        auth=ODataAuth("basic", ("USER", "PASSWORD")),
        verify=True,
    )

    with ODataSession(cfg) as sess:
        catalog = ODataMetadata(sess).catalog
        writer = RequestWriter(catalog, base_uri=cfg.base_url, settings=WriterSettings(indent=True))

        request = writer.create_insert_request(
            "Orders",
            {"Id": 1, "Note": "rush", "Customer": {"Id": 42}},
        )
        print(request.method, request.uri)
        print(request.body.decode("utf-8"))
        print(sess.send(request))


def example_connection_context():
    """Using ConnectionContext (reads ODATA_* environment variables)."""

    with ConnectionContext() as conn:
        writer = conn.request_writer()
        update = writer.create_update_request("Products", "Products(5)", {"Price": "12.50"})
        conn.session.send(update)

        action = writer.create_action_request("Products(5)/Shop.Restock", "Restock", {"Amount": 10})
        conn.session.send(action)


def example_batch():
    """Create a customer and an order linked to it in one $batch."""

    with ConnectionContext() as conn:
        batch = conn.batch()
        writer = conn.request_writer(batch=batch)

        customer = {"Id": 7, "Name": "Ada"}
        writer.create_insert_request("Customers", customer)
        # The order refers to the customer created above by its content-id ($1)
        writer.create_insert_request("Orders", {"Id": 100, "Customer": customer})
        writer.create_insert_request("Orders", {"Id": 101, "Customer": ReferenceLink({"Id": 7}, content_id="1")})

        response = conn.session.send_batch(batch)
        print(response.status_code)


def example_offline_batch_body(catalog):
    """Render a batch body without a live service."""
    batch = BatchWriter("https://services.example.com/odata/Shop/")
    writer = RequestWriter(catalog, base_uri=batch.base_uri, batch=batch)
    writer.create_insert_request("Products", {"Name": "Widget", "Price": 9.99})
    body, content_type = batch.write_batch()
    print(content_type)
    print(body.decode("utf-8"))


if __name__ == "__main__":
    example_insert()
