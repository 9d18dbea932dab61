"""Services for Sivic: data gateways and the response cache."""
