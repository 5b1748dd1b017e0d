# In-memory reference backend for the storefront core
