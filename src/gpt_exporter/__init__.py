"""Export ChatGPT conversation graphs to Obsidian Markdown."""
