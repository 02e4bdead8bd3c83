"""Click commands registered on the ``syncreeper`` group."""
