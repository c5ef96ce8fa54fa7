"""CDK stacks and constructs for the chat auth gateway."""
