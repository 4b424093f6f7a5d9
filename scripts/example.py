# Example custom command script.
# Drop more *.py files in this directory; they are loaded when the bot starts.

name = "example"
description = "An example custom command"
category = "custom"
usage = "/example [text]"
cooldown = 5


async def execute(ctx):
    text = " ".join(ctx.args) or "Hello from custom command!"
    await ctx.reply(f"Custom Command Response: {text}")
